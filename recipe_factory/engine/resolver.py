"""
Recipe Factory - Script Node Resolver

Walks a decoded JSON tree (dicts, lists and scalars) and replaces every
scripted string leaf with its evaluated text. The tree is modified in place,
so the StepContext handed to handlers already carries resolved values.
"""

from __future__ import annotations
from typing import Any
import logging

from recipe_factory.engine.scripting import ScriptContext, evaluate_script, is_scripted

logger = logging.getLogger(__name__)


def resolve_tree(node: Any, context: ScriptContext) -> Any:
    """
    Resolve all scripted leaves of a JSON tree.

    Args:
        node: Root of the tree (dict, list or scalar)
        context: Script context of the current step

    Returns:
        The resolved node. Containers are the same objects that were passed
        in; a scripted root string is returned as its evaluated text.
    """
    if isinstance(node, dict):
        for key, value in node.items():
            if is_scripted(value):
                node[key] = evaluate_script(value, context)
            else:
                resolve_tree(value, context)
        return node

    if isinstance(node, list):
        for index, value in enumerate(node):
            if is_scripted(value):
                node[index] = evaluate_script(value, context)
            else:
                resolve_tree(value, context)
        return node

    if is_scripted(node):
        return evaluate_script(node, context)

    # Numbers, booleans, null and plain strings stay as they are
    return node
