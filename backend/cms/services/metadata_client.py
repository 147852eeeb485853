"""Client for the company metadata server (employees and departments)."""
import logging
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cms.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class EmployeeMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    email: str
    position: Optional[str] = None
    department_id: str = Field(alias="departmentId")
    department_name: Optional[str] = Field(default=None, alias="departmentName")
    status: Literal["ACTIVE", "INACTIVE", "RESIGNED"]
    hire_date: Optional[str] = Field(default=None, alias="hireDate")
    resignation_date: Optional[str] = Field(default=None, alias="resignationDate")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    office_location: Optional[str] = Field(default=None, alias="officeLocation")


class DepartmentMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    code: str
    parent_department_id: Optional[str] = Field(default=None, alias="parentDepartmentId")
    manager_id: Optional[str] = Field(default=None, alias="managerId")
    description: Optional[str] = None
    status: Literal["ACTIVE", "INACTIVE"]


class MetadataClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={API_KEY_HEADER: api_key, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Metadata server returned %s for %s", exc.response.status_code, path)
            raise ExternalServiceError(
                f"Metadata server returned {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Metadata server request to %s failed: %s", path, exc)
            raise ExternalServiceError("Metadata server is unavailable") from exc

    def _list(self, path: str, model, page_size: int) -> list:
        items = []
        page = 1
        while True:
            payload = self._get(path, params={"page": page, "pageSize": page_size})
            try:
                items.extend(model.model_validate(row) for row in payload.get("data", []))
            except ValidationError as exc:
                raise ExternalServiceError("Metadata server returned malformed data") from exc

            total_pages = (payload.get("pagination") or {}).get("totalPages", 1)
            if page >= total_pages:
                return items
            page += 1

    def list_employees(self, page_size: int = 100) -> list[EmployeeMetadata]:
        return self._list("/employees", EmployeeMetadata, page_size)

    def list_departments(self, page_size: int = 100) -> list[DepartmentMetadata]:
        return self._list("/departments", DepartmentMetadata, page_size)

    def health(self) -> bool:
        self._get("/health")
        return True
