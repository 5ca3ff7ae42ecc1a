"""Component catalog: registry of all node kinds, keyed by kind tag."""

from __future__ import annotations

import logging
from typing import Optional

from modelling.components.base import BaseComponent
from modelling.components.categorise import CategoriseComponent
from modelling.components.map_layer import MapLayerComponent
from modelling.components.numeric import NumericConstantComponent, SumComponent, ThresholdComponent

logger = logging.getLogger(__name__)


class ComponentCatalog:
    """Maps kind tags to component instances. Components are stateless."""

    def __init__(self):
        self._components: dict[str, BaseComponent] = {}

    def register(self, component: BaseComponent) -> None:
        if not component.name:
            raise ValueError(f"{type(component).__name__} has no kind name")
        if component.name in self._components:
            logger.warning(f"Replacing node kind '{component.name}'")
        self._components[component.name] = component

    def get(self, kind: str) -> BaseComponent:
        try:
            return self._components[kind]
        except KeyError:
            raise ValueError(f"Unknown node kind: {kind}") from None

    def __contains__(self, kind: str) -> bool:
        return kind in self._components

    def list_components(self, category: Optional[str] = None) -> list[str]:
        if category is None:
            return sorted(self._components)
        return sorted(
            name for name, c in self._components.items()
            if c.category.lower() == category.lower()
        )

    def list_categories(self) -> list[str]:
        return sorted({c.category for c in self._components.values()})


# Global singleton
COMPONENT_CATALOG = ComponentCatalog()

for _component in [
    NumericConstantComponent(),
    SumComponent(),
    ThresholdComponent(),
    CategoriseComponent(),
    MapLayerComponent(),
]:
    COMPONENT_CATALOG.register(_component)
