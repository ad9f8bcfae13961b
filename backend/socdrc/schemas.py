from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any, List


class ValidateRequest(BaseModel):
    diagram: Dict[str, Any]


class AutoFixRequest(BaseModel):
    """Diagram plus, optionally, the issues a client already got from /validate"""
    diagram: Dict[str, Any]
    issues: Optional[List[Dict[str, Any]]] = None


class DRCCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    diagram: Optional[Dict[str, Any]] = None  # falls back to the project's saved diagram
    project_id: Optional[str] = Field(default=None, alias="projectId")
    options: Optional[Dict[str, Any]] = None  # {checkOptionalPorts, namePattern, interconnectFanoutLimit}
