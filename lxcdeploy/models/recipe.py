"""Application recipe models.

A recipe describes one installable application: container defaults, the
ordered install steps run inside the container, and how to reach it
afterwards. Recipes ship as YAML files in lxcdeploy/apps/.
"""
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Option names a recipe may preset in its `defaults` block
RECIPE_DEFAULT_KEYS = {
    'hostname', 'description', 'storage', 'template_storage', 'disk_size',
    'memory', 'swap', 'cores', 'unprivileged', 'nesting', 'fuse', 'keyctl',
    'bridge', 'username', 'install_dir', 'os_type', 'os_version', 'arch',
}

_PASSWORD_REF = re.compile(r"\bpassword\b")


class InstallStep(BaseModel):
    """One named command run inside the container."""

    model_config = ConfigDict(extra='forbid')

    name: str = Field(..., description="Step identifier, recorded in the step marker")
    description: str = Field("", description="Progress message shown while the step runs")
    run: str = Field(..., description="Jinja2 template rendering to a bash script")
    skip_if: Optional[str] = Field(
        None, description="Jinja2 template for a probe; exit 0 means already applied"
    )
    secret: bool = Field(False, description="Mask the rendered command in logs")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Step names end up in a marker file, keep them simple."""
        if not re.match(r'^[a-z0-9][a-z0-9\-]*$', v):
            raise ValueError(
                f"Step name '{v}' must be lowercase alphanumeric with hyphens"
            )
        return v

    def uses_password(self) -> bool:
        """True if the command template references the container user password."""
        return bool(_PASSWORD_REF.search(self.run))


class AppRecipe(BaseModel):
    """Complete application recipe."""

    model_config = ConfigDict(extra='forbid')

    name: str = Field(..., description="Recipe slug, used with --app")
    title: str = Field(..., description="Human-readable application name")
    description: str = ""
    port: int = Field(..., ge=1, le=65535, description="Web UI port inside the container")
    url_path: str = "/"
    defaults: Dict[str, Any] = Field(default_factory=dict)
    secrets: Dict[str, int] = Field(
        default_factory=dict, description="Secret name -> generated length"
    )
    steps: List[InstallStep] = Field(..., min_length=1)
    notes: List[str] = Field(default_factory=list)

    @field_validator('defaults')
    @classmethod
    def validate_defaults(cls, v):
        unknown = set(v) - RECIPE_DEFAULT_KEYS
        if unknown:
            raise ValueError(f"Unknown recipe defaults: {', '.join(sorted(unknown))}")
        return v

    @field_validator('secrets')
    @classmethod
    def validate_secrets(cls, v):
        for name, length in v.items():
            if not re.match(r'^[a-z_][a-z0-9_]*$', name):
                raise ValueError(f"Secret name '{name}' must be lowercase snake_case")
            if length < 8:
                raise ValueError(f"Secret '{name}' must be at least 8 characters")
        return v

    @model_validator(mode='after')
    def validate_unique_steps(self) -> 'AppRecipe':
        names = [step.name for step in self.steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")
        return self

    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]
