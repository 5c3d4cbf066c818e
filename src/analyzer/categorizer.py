# src/analyzer/categorizer.py - Slow invocation categorization
"""
Assigns categories to method invocations using ordered template definitions.

Categories are data: a priority-ordered list of definitions where the first
definition whose method-name template and arguments template both match
wins. Subcategories then refine the assigned category by matching one of
its captured parameters.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from src.analyzer.template import Template, TemplateError, TemplateMatch


@dataclass
class CategoryDefinition:
    """
    A named category; an absent template matches anything.
    """
    name: str
    method_template: Template
    arguments_template: Template

    @classmethod
    def create(cls, name: str, method: Optional[str] = None, arguments: Optional[str] = None) -> 'CategoryDefinition':
        return cls(name, Template.compile(method), Template.compile(arguments))

    def match(self, method_name: str, arguments: str) -> Optional['Categorization']:
        method_match = self.method_template.match(method_name)
        if method_match is None:
            return None
        arguments_match = self.arguments_template.match(arguments)
        if arguments_match is None:
            return None
        return Categorization(self, merge_groups(method_match, arguments_match))


@dataclass
class SubcategoryDefinition:
    """
    Refines a category when the value of ``parameter`` matches a template.
    """
    name: str
    parameter: str
    value_template: Template

    @classmethod
    def create(cls, name: str, parameter: str, value: Optional[str] = None) -> 'SubcategoryDefinition':
        return cls(name, parameter, Template.compile(value))

    def match(self, parameters: Dict[str, Optional[str]]) -> Optional['Subcategorization']:
        value = parameters.get(self.parameter)
        if value is None:
            return None
        value_match = self.value_template.match(value)
        if value_match is None:
            return None
        return Subcategorization(self.name, dict(value_match.groups))


@dataclass
class Subcategorization:
    name: str
    parameters: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class Categorization:
    """
    Result of categorizing one invocation.
    """
    definition: CategoryDefinition
    parameters: Dict[str, Optional[str]] = field(default_factory=dict)
    subcategories: List[Subcategorization] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.definition.name + ''.join('.' + sub.name for sub in self.subcategories)

    @property
    def all_parameters(self) -> Dict[str, Optional[str]]:
        merged = dict(self.parameters)
        for sub in self.subcategories:
            merged.update(sub.parameters)
        return merged


def merge_groups(*matches: TemplateMatch) -> Dict[str, Optional[str]]:
    merged: Dict[str, Optional[str]] = {}
    for m in matches:
        merged.update(m.groups)
    return merged


class Categorizer:
    """
    Categorizes invocations with ordered category and subcategory definitions.
    """

    def __init__(self, categories: List[CategoryDefinition],
                 subcategories: Optional[List[SubcategoryDefinition]] = None):
        self.categories = list(categories)
        self.subcategories = list(subcategories or [])
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, categories: Optional[List[Dict]], subcategories: Optional[List[Dict]] = None) -> 'Categorizer':
        """
        Build a categorizer from configuration lists.

        Args:
            categories: Dicts with ``name`` and optional ``method``/``arguments`` templates
            subcategories: Dicts with ``name``, ``parameter`` and ``value`` template

        Raises:
            TemplateError: If a definition is incomplete or a template is malformed
        """
        category_defs = []
        for definition in categories or []:
            if 'name' not in definition:
                raise TemplateError(f"Category definition without a name: {definition}")
            category_defs.append(CategoryDefinition.create(definition['name'], definition.get('method'), definition.get('arguments')))

        subcategory_defs = []
        for definition in subcategories or []:
            if 'name' not in definition or 'parameter' not in definition:
                raise TemplateError(f"Subcategory definition needs a name and a parameter: {definition}")
            subcategory_defs.append(SubcategoryDefinition.create(definition['name'], definition['parameter'], definition.get('value')))

        return cls(category_defs, subcategory_defs)

    def categorize_call(self, method_name: str, arguments: str) -> Optional[Categorization]:
        """
        Find the category of a call.

        Returns:
            Categorization from the first matching definition, or None
        """
        for definition in self.categories:
            categorization = definition.match(method_name, arguments)
            if categorization is not None:
                break
        else:
            return None

        for sub in self.subcategories:
            subcategorization = sub.match(categorization.parameters)
            if subcategorization is not None:
                categorization.subcategories.append(subcategorization)
        return categorization

    def categorize(self, invocation) -> Optional[Categorization]:
        """
        Categorize a MethodInvocation and store the result on it.
        """
        invocation.categorization = self.categorize_call(invocation.method, invocation.arguments)
        if invocation.categorization is None:
            self.logger.debug(f"No category for {invocation.method}")
        return invocation.categorization
