"""Structural validation for email block trees.

An email body is a tree rooted at ``sfdc_cms/rootContentBlock``. Its
children are sections, sections hold columns, and columns hold the actual
components (paragraphs, images, buttons...). Component kinds below the
column level are left for the remote API to judge.

Validation is advisory: the report lists every violation found in one
pass, and callers may still attempt creation.
"""

import json
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .models import ContentNode, ValidationError, ValidationReport

ROOT_DEFINITION = "sfdc_cms/rootContentBlock"
SECTION_DEFINITION = "lightning/section"
COLUMN_DEFINITION = "lightning/column"

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

BLOCK_TREE_RULES = (
    "Every node id must be a UUID (8-4-4-4-12 hex digits).",
    f"The root node definition must be {ROOT_DEFINITION}.",
    f"Every direct child of the root must be {SECTION_DEFINITION}.",
    f"Every direct child of a {SECTION_DEFINITION} must be {COLUMN_DEFINITION}.",
    "Components (paragraphs, images, buttons...) go inside columns.",
)


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and UUID_PATTERN.match(value) is not None


def parse_block_tree(tree: dict[str, Any] | str | ContentNode) -> ContentNode:
    """Coerce tool input into a ContentNode tree.

    Accepts a node dict, an already-parsed ContentNode, or a JSON string
    (agents sometimes send the tree stringified).

    Raises:
        ValidationError: if the input cannot be read as a node tree at all.
    """
    if isinstance(tree, ContentNode):
        return tree

    if isinstance(tree, str):
        try:
            tree = json.loads(tree)
        except json.JSONDecodeError as err:
            raise ValidationError(f"Block tree is not valid JSON: {err}") from err

    if not isinstance(tree, dict):
        raise ValidationError(
            f"Block tree must be an object with id/definition/children, got {type(tree).__name__}"
        )

    try:
        return ContentNode.model_validate(tree)
    except PydanticValidationError as err:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'root'}: {e['msg']}" for e in err.errors()
        )
        raise ValidationError(f"Block tree is malformed: {problems}") from err


def validate_block_tree(tree: dict[str, Any] | str | ContentNode) -> ValidationReport:
    """Walk the whole tree and report every structural violation.

    Rules (each reported independently):
      1. every node id is a UUID
      2. the root definition is sfdc_cms/rootContentBlock
      3. every child of the root is a lightning/section
      4. every child of a lightning/section is a lightning/column
    """
    root = parse_block_tree(tree)
    violations: list[str] = []
    warnings: list[str] = []
    seen_ids: set[str] = set()

    if root.definition != ROOT_DEFINITION:
        violations.append(
            f"root: definition must be {ROOT_DEFINITION} (found '{root.definition}')"
        )
    if not root.children:
        warnings.append("root: no sections; the email body will be empty")

    def visit(node: ContentNode, path: str, parent: ContentNode | None) -> None:
        if not is_valid_uuid(node.id):
            violations.append(f"{path}: invalid UUID '{node.id}'")
        elif node.id.lower() in seen_ids:
            warnings.append(f"{path}: duplicate id '{node.id}'")
        else:
            seen_ids.add(node.id.lower())

        if parent is root and node.definition != SECTION_DEFINITION:
            violations.append(
                f"{path}: direct child of root must be {SECTION_DEFINITION} "
                f"(found '{node.definition}')"
            )
        elif parent is not None and parent is not root \
                and parent.definition == SECTION_DEFINITION \
                and node.definition != COLUMN_DEFINITION:
            violations.append(
                f"{path}: direct child of {SECTION_DEFINITION} must be {COLUMN_DEFINITION} "
                f"(found '{node.definition}')"
            )

        if node.definition == SECTION_DEFINITION and not node.children:
            warnings.append(f"{path}: section has no columns")

        for idx, child in enumerate(node.children):
            visit(child, f"{path}.children[{idx}]", node)

    visit(root, "root", None)

    return ValidationReport(valid=not violations, violations=violations, warnings=warnings)
