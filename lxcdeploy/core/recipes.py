"""Application recipe loading and step rendering."""
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError
from pydantic import ValidationError

from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import ConfigValidationError
from lxcdeploy.models.recipe import AppRecipe
from lxcdeploy.models.request import ProvisioningRequest

logger = get_logger(__name__)


@dataclass(frozen=True)
class RenderedStep:
    """An install step with its templates rendered for one request."""
    name: str
    description: str
    command: str
    skip_if: Optional[str] = None
    secret: bool = False


class RecipeLoader:
    """Loads application recipes and renders their step templates."""

    def __init__(self, recipe_dir: Optional[Path] = None):
        """Initialize recipe loader.

        Args:
            recipe_dir: Directory containing recipe YAML files.
                        Defaults to lxcdeploy/apps/
        """
        if recipe_dir is None:
            self.recipe_dir = Path(__file__).parent.parent / "apps"
        else:
            self.recipe_dir = Path(recipe_dir)

        self.jinja_env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.jinja_env.filters['quote'] = shlex.quote

    def list_recipes(self) -> List[AppRecipe]:
        """List every valid recipe, sorted by name."""
        recipes = []

        if not self.recipe_dir.exists():
            logger.warning(f"Recipe directory not found: {self.recipe_dir}")
            return recipes

        for yaml_file in sorted(self.recipe_dir.glob("*.yml")):
            try:
                recipes.append(self.load_recipe(yaml_file.stem))
            except ConfigValidationError as e:
                logger.warning(f"Skipping recipe {yaml_file.stem}: {e}")

        return recipes

    def load_recipe(self, name: str) -> AppRecipe:
        """Load a recipe by slug.

        Raises:
            ConfigValidationError: Recipe missing or invalid
        """
        recipe_file = self.recipe_dir / f"{name}.yml"
        if not recipe_file.exists():
            available = ", ".join(p.stem for p in sorted(self.recipe_dir.glob("*.yml")))
            raise ConfigValidationError(
                f"Unknown application '{name}'. Available: {available or 'none'}"
            )

        with open(recipe_file) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigValidationError(f"Recipe {recipe_file} is empty or not a mapping")

        try:
            return AppRecipe.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid recipe {recipe_file}: {e}") from e

    def render(self, template: str, context: Dict[str, Any]) -> str:
        """Render one template string.

        Raises:
            ConfigValidationError: Template references an unknown variable
        """
        try:
            return self.jinja_env.from_string(template).render(**context).strip()
        except TemplateError as e:
            raise ConfigValidationError(f"Failed to render recipe template: {e}") from e

    @staticmethod
    def build_context(request: ProvisioningRequest) -> Dict[str, Any]:
        """Variables available to step, probe and note templates."""
        return {
            'ctid': request.ctid,
            'hostname': request.hostname,
            'username': request.username,
            'password': request.password or '',
            'install_dir': request.app.install_dir,
            'app': request.app.app,
            'secrets': dict(request.app.secrets),
        }

    def render_steps(self, recipe: AppRecipe, request: ProvisioningRequest) -> List[RenderedStep]:
        """Render every step of ``recipe`` against ``request``, preserving order."""
        context = self.build_context(request)
        rendered = []
        for step in recipe.steps:
            rendered.append(RenderedStep(
                name=step.name,
                description=self.render(step.description, context) if step.description else step.name,
                command=self.render(step.run, context),
                skip_if=self.render(step.skip_if, context) if step.skip_if else None,
                secret=step.secret,
            ))
        return rendered

    def render_notes(self, recipe: AppRecipe, request: ProvisioningRequest) -> List[str]:
        context = self.build_context(request)
        return [self.render(note, context) for note in recipe.notes]
