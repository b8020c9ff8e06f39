"""地理坐标模型"""

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    """十进制度坐标"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0, description="纬度")
    longitude: float = Field(ge=-180.0, le=180.0, description="经度")

    def as_pair(self) -> tuple[float, float]:
        return self.latitude, self.longitude


class RouteLine(BaseModel):
    """两点之间的直线折线，仅用于地图展示，不做路径规划"""

    model_config = ConfigDict(frozen=True)

    start: Position = Field(description="起点")
    end: Position = Field(description="终点")
    distance_km: float = Field(ge=0.0, description="大圆距离（公里）")

    @property
    def points(self) -> list[tuple[float, float]]:
        return [self.start.as_pair(), self.end.as_pair()]
