import logging

from fastapi import APIRouter, Depends, HTTPException

from socdrc.schemas import AutoFixRequest, DRCCheckRequest, ValidateRequest
from socdrc.ir.diagram import Diagram
from socdrc.ir.errors import SocDrcError, StructuralValidationError
from socdrc.validation import (
    DiagramAutoFixer,
    DiagramValidationResult,
    DiagramValidator,
    IssueSeverity,
    ValidationIssue,
)
from socdrc.drc import DRCOptions, get_rule_registry, run_check
from socdrc.storage import ResultsStore, get_results_store

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# STRUCTURAL VALIDATION
# ============================================================

@router.post("/validate")
def validate_structure(request: ValidateRequest):
    """Structural validation only; never modifies the diagram."""
    try:
        diagram = Diagram.from_dict(request.diagram)
    except SocDrcError as e:
        return {"status": "error", "message": str(e)}

    result = DiagramValidator().validate(diagram)
    logger.info("[Routes] /validate %s", result.get_summary())
    return {
        "status": "success" if result.is_valid else "invalid",
        "summary": result.get_summary(),
        **result.to_dict(),
    }


@router.post("/autofix")
def autofix_structure(request: AutoFixRequest):
    """
    Apply auto-fixes and re-validate.

    When ``issues`` is given it must come from validating this same diagram;
    otherwise the diagram is validated first.
    """
    try:
        diagram = Diagram.from_dict(request.diagram)
        validation = None
        if request.issues is not None:
            issues = [ValidationIssue.from_dict(i) for i in request.issues]
            validation = DiagramValidationResult(
                is_valid=not any(i.severity == IssueSeverity.ERROR for i in issues),
                issues=issues,
            )
        fixer = DiagramAutoFixer()
        fixed_diagram, fix_result = fixer.fix(diagram, validation)
    except (SocDrcError, ValueError, KeyError) as e:
        return {"status": "error", "message": str(e)}

    final_validation = fixer.validator.validate(fixed_diagram)
    return {
        "status": "success" if final_validation.is_valid else "invalid",
        "diagram": fixed_diagram.to_dict(),
        "validation": final_validation.to_dict(),
        "autoFix": fix_result.to_dict(),
    }


# ============================================================
# DESIGN RULE CHECK
# ============================================================

@router.post("/drc/check")
def check_design_rules(
    request: DRCCheckRequest,
    store: ResultsStore = Depends(get_results_store),
):
    """
    Run DRC on a diagram, or on the project's saved diagram when none is sent.

    The result is saved as the project's drc_results.json when a project id is given.
    """
    try:
        if request.diagram is not None:
            diagram = Diagram.from_dict(request.diagram)
        elif request.project_id:
            diagram = store.load_diagram(request.project_id)
            if diagram is None:
                raise HTTPException(status_code=404, detail=f"No saved diagram for project '{request.project_id}'")
        else:
            return {"status": "error", "message": "Either 'diagram' or 'projectId' is required"}

        options = DRCOptions.from_dict(request.options, base=DRCOptions.from_env())
        result = run_check(diagram, options)
        if request.project_id:
            store.save_result(request.project_id, result)
    except StructuralValidationError as e:
        return {
            "status": "invalid",
            "message": "Diagram has structural errors; run /autofix before DRC",
            "issues": [i.to_dict() for i in e.issues],
        }
    except (SocDrcError, ValueError) as e:
        return {"status": "error", "message": str(e)}

    return {"status": "success", "data": result.to_dict()}


@router.get("/drc/results/{project_id}")
def get_drc_results(project_id: str, store: ResultsStore = Depends(get_results_store)):
    """Latest saved DRC result for a project."""
    try:
        result = store.load_result(project_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail=f"No DRC results for project '{project_id}'")
    return {"status": "success", "data": result.to_dict()}


@router.get("/drc/rules")
def list_drc_rules():
    registry = get_rule_registry()
    return {
        "status": "success",
        "count": len(registry.list_all()),
        "categories": registry.grouped(),
    }
