"""Data models for lxcdeploy."""
from lxcdeploy.models.recipe import AppRecipe, InstallStep
from lxcdeploy.models.request import (
    AppSettings,
    NetworkSpec,
    ProvisioningRequest,
    ResourceSpec,
    TemplateSpec,
)

__all__ = [
    'AppRecipe',
    'AppSettings',
    'InstallStep',
    'NetworkSpec',
    'ProvisioningRequest',
    'ResourceSpec',
    'TemplateSpec',
]
