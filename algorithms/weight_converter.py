class WeightConverter:
    """Utility for converting between kg and lb and inches and cm."""

    KG_TO_LB = 2.20462
    LB_TO_KG = 0.453592
    IN_TO_CM = 2.54

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float, precise: bool = False) -> float:
        kg = lb * WeightConverter.LB_TO_KG
        return kg if precise else round(kg, 2)

    @staticmethod
    def in_to_cm(inches: float) -> float:
        return inches * WeightConverter.IN_TO_CM
