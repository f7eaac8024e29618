"""Option Resolver: turns flags, prompts and files into one request."""
from typing import Any, Dict, Optional, Tuple

from lxcdeploy.config.options import (
    DEFAULT_APP,
    build_request,
    normalize_layer,
)
from lxcdeploy.core.logger import get_logger
from lxcdeploy.core.recipes import RecipeLoader
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest

logger = get_logger(__name__)


class OptionResolver:
    """Resolves option layers into a ProvisioningRequest and its app recipe.

    Priority: command-line flags > interactive answers > config file >
    recipe defaults > built-in defaults.
    """

    def __init__(self, recipes: Optional[RecipeLoader] = None):
        self.recipes = recipes or RecipeLoader()

    def resolve(
        self,
        flags: Optional[Dict[str, Any]] = None,
        interactive: Optional[Dict[str, Any]] = None,
        config_file: Optional[Dict[str, Any]] = None,
    ) -> Tuple[ProvisioningRequest, AppRecipe]:
        """Build the request.

        Raises:
            ConfigValidationError: Invalid value in any layer or unknown app
        """
        flag_layer = normalize_layer(flags, source="command line")
        interactive_layer = normalize_layer(interactive, source="interactive input")
        file_layer = normalize_layer(config_file, source="config file")

        app = (
            flag_layer.get('app')
            or interactive_layer.get('app')
            or file_layer.get('app')
            or DEFAULT_APP
        )
        recipe = self.recipes.load_recipe(app)
        recipe_layer = normalize_layer(recipe.defaults, source=f"recipe {recipe.name}")

        request = build_request(flag_layer, interactive_layer, file_layer, recipe_layer)
        logger.debug(
            f"Resolved request for {recipe.name}: ctid={request.ctid or 'auto'} "
            f"hostname={request.hostname} net0={request.network.descriptor()}"
        )
        return request, recipe
