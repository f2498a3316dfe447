"""
Table validation - Check table elements for structural issues.

Provides validation that can be used by the backend, the MCP tools and the
tests to confirm that a table is internally consistent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .config import get_config
from .grid import flat_idx_to_row_col, row_col_to_flat_idx
from .spans import from_canonical, normalize_span

if TYPE_CHECKING:
    from .models import TableElement


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a table."""
    severity: IssueSeverity
    message: str
    cell_index: int | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.cell_index is not None:
            result["cell_index"] = self.cell_index
        return result


def validate_table(element: "TableElement") -> list[ValidationIssue]:
    """
    Validate a table and return a list of issues.

    Checks for:
    - Track size lists that don't match the counts or don't sum to 100 - ERROR
    - Canonical array of the wrong length - ERROR
    - Footprints that overlap, leave the grid, or leave gaps - ERROR
    - Slaves with content or spans - ERROR
    - Legacy arrays out of sync with the canonical array - ERROR
    - Jagged per-row form still present - INFO

    Args:
        element: The table to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    tolerance = get_config().percent_tolerance
    rows, cols = element.rows, element.cols

    if len(element.col_widths) != cols:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Expected {cols} column widths, found {len(element.col_widths)}"
        ))
    elif abs(sum(element.col_widths) - 100.0) > tolerance:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Column widths sum to {sum(element.col_widths):.4f}, not 100"
        ))

    if len(element.row_heights) != rows:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Expected {rows} row heights, found {len(element.row_heights)}"
        ))
    elif abs(sum(element.row_heights) - 100.0) > tolerance:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Row heights sum to {sum(element.row_heights):.4f}, not 100"
        ))

    if element.row_col_widths is not None:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Table uses the legacy per-row column widths"
        ))
        return issues

    if not element.cells:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message="Canonical cells missing; they will be rebuilt from legacy data"
        ))
        return issues

    cells = element.cells
    if len(cells) != rows * cols:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Expected {rows * cols} cells, found {len(cells)}"
        ))
        return issues

    # Footprint tiling
    owner: list[int | None] = [None] * (rows * cols)
    for idx, cell in enumerate(cells):
        if cell.is_merged:
            if cell.content or cell.row_span != 1 or cell.col_span != 1:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message="Hidden cell carries content or spans",
                    cell_index=idx
                ))
            continue
        row, col = flat_idx_to_row_col(idx, cols)
        if row + cell.row_span > rows or col + cell.col_span > cols:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Span {cell.row_span}x{cell.col_span} runs past the grid edge",
                cell_index=idx
            ))
            continue
        for r in range(row, row + cell.row_span):
            for c in range(col, col + cell.col_span):
                covered = row_col_to_flat_idx(r, c, cols)
                if owner[covered] is not None:
                    issues.append(ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        message=f"Footprint overlaps the one of cell {owner[covered]}",
                        cell_index=idx
                    ))
                owner[covered] = idx
                if covered != idx and not cells[covered].is_merged:
                    issues.append(ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        message=f"Visible cell lies inside the block of cell {idx}",
                        cell_index=covered
                    ))

    for idx, cell in enumerate(cells):
        if cell.is_merged and owner[idx] is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Hidden cell is not covered by any merged block",
                cell_index=idx
            ))

    # Legacy encoding must mirror the canonical cells
    expected_content, expected_spans = from_canonical(cells)
    spans = element.legacy_spans or []
    if element.legacy_content != expected_content:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Legacy content array is out of sync"
        ))
    if len(spans) != len(expected_spans) or any(
        normalize_span(actual) != normalize_span(expected)
        for actual, expected in zip(spans, expected_spans)
    ):
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Legacy span array is out of sync"
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
