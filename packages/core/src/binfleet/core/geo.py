"""GeoMath -- 纯函数距离/方位计算

仅用于“到任务点的距离”展示和两点直线折线，不做路径规划。
输入为十进制度，距离单位为公里。
"""

import math

from .models.position import Position, RouteLine

# 地球半径（公里）
EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """大圆距离（公里），非负且对称，同一点为 0"""
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # 浮点误差可能让 a 略超出 [0, 1]
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(a: Position, b: Position) -> float:
    """两个 Position 之间的大圆距离（公里）"""
    return haversine_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """从起点指向终点的初始方位角，范围 [0, 360)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)

    x = math.sin(d_lambda) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(
        d_lambda
    )
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def format_distance_km(distance_km: float) -> str:
    """保留一位小数的距离展示串"""
    return f"{distance_km:.1f}"


def route_line(start: Position, end: Position) -> RouteLine:
    """两点直线折线"""
    return RouteLine(start=start, end=end, distance_km=distance_between(start, end))
