from .math_tools import MathTools
from .weight_converter import WeightConverter
from .weight_trend import WeightTrend

__all__ = ["MathTools", "WeightConverter", "WeightTrend"]
