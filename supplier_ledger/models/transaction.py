from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Transaction(BaseModel):
    """
    The part of a repair transaction the ledger reads.

    parts_cost is the serialized line-item field: a JSON array of
    {store?, customStore?, item?, cost}, or the decoded list itself.
    """
    id: Optional[str] = None
    customer_name: str = Field(default="", alias="customerName")
    device_model: str = Field(default="", alias="deviceModel")
    repair_type: str = Field(default="", alias="repairType")
    requires_inventory: bool = Field(default=True, alias="requiresInventory")
    parts_cost: Union[str, List[Any], None] = Field(default=None, alias="partsCost")

    model_config = ConfigDict(populate_by_name=True)
