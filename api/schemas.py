from __future__ import annotations

from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FilterValueModel(BaseModel):
    value: str
    mode: Literal["include", "exclude"] = "include"


def _selection_list(values: Any) -> Any:
    # bare strings from older clients are includes
    if isinstance(values, list):
        return [{"value": v, "mode": "include"} if isinstance(v, str) else v for v in values]
    return values


class DashboardFiltersModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    account_countries: List[FilterValueModel] = Field(default_factory=list)
    account_regions: List[FilterValueModel] = Field(default_factory=list)
    account_industries: List[FilterValueModel] = Field(default_factory=list)
    account_sub_industries: List[FilterValueModel] = Field(default_factory=list)
    account_primary_categories: List[FilterValueModel] = Field(default_factory=list)
    account_primary_natures: List[FilterValueModel] = Field(default_factory=list)
    account_nasscom_statuses: List[FilterValueModel] = Field(default_factory=list)
    account_employees_ranges: List[FilterValueModel] = Field(default_factory=list)
    account_center_employees: List[FilterValueModel] = Field(default_factory=list)
    center_types: List[FilterValueModel] = Field(default_factory=list)
    center_focus: List[FilterValueModel] = Field(default_factory=list)
    center_cities: List[FilterValueModel] = Field(default_factory=list)
    center_states: List[FilterValueModel] = Field(default_factory=list)
    center_countries: List[FilterValueModel] = Field(default_factory=list)
    center_employees: List[FilterValueModel] = Field(default_factory=list)
    center_statuses: List[FilterValueModel] = Field(default_factory=list)
    function_types: List[FilterValueModel] = Field(default_factory=list)
    prospect_departments: List[FilterValueModel] = Field(default_factory=list)
    prospect_levels: List[FilterValueModel] = Field(default_factory=list)
    prospect_cities: List[FilterValueModel] = Field(default_factory=list)
    account_name_keywords: List[FilterValueModel] = Field(default_factory=list)
    prospect_title_keywords: List[FilterValueModel] = Field(default_factory=list)
    account_revenue_range: Optional[Tuple[float, float]] = None
    include_null_revenue: bool = False
    search_term: str = ""

    @field_validator(
        "account_countries",
        "account_regions",
        "account_industries",
        "account_sub_industries",
        "account_primary_categories",
        "account_primary_natures",
        "account_nasscom_statuses",
        "account_employees_ranges",
        "account_center_employees",
        "center_types",
        "center_focus",
        "center_cities",
        "center_states",
        "center_countries",
        "center_employees",
        "center_statuses",
        "function_types",
        "prospect_departments",
        "prospect_levels",
        "prospect_cities",
        "account_name_keywords",
        "prospect_title_keywords",
        mode="before",
    )
    @classmethod
    def _legacy_strings(cls, values: Any) -> Any:
        return _selection_list(values)


class SavedFilterRequest(BaseModel):
    name: str
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)


class AccountDetailsRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    account_name: str


class CenterDetailsRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    cn_unique_key: str


class ProspectDetailsRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    account_name: str
    first_name: str = ""
    last_name: str = ""


class SuggestRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    query: str = ""
    limit: int = Field(default=50, ge=1, le=500)
