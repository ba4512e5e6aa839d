from fastapi import APIRouter, HTTPException, status

from circuitwiz.modules.registry import (
    get_all_modules,
    get_categories,
    get_module,
    get_modules_by_category,
)

router = APIRouter()


@router.get("/")
async def list_all_components(category: str | None = None):
    """Return every component definition, optionally filtered by category."""
    if category is not None:
        return get_modules_by_category(category)
    return get_all_modules()


@router.get("/categories")
async def list_categories():
    return get_categories()


@router.get("/{module}")
async def get_component(module: str):
    """Return one component definition by module name."""
    definition = get_module(module)
    if definition is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Module {module} not found",
        )
    return definition
