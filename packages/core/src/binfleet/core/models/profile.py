"""司机档案"""

from pydantic import BaseModel, Field


class DriverProfile(BaseModel):
    """当前登录司机的档案（来自外部身份服务）"""

    driver_id: str = Field(description="司机 ID")
    name: str = Field(description="姓名")
    email: str = Field(default="")
    phone: str = Field(default="")
    vehicle_info: str = Field(default="", description="车辆信息")
    license_number: str = Field(default="")
    total_collections: int = Field(default=0, ge=0, description="累计收运次数")
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    status: str = Field(default="active")
