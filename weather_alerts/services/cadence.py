# weather_alerts/services/cadence.py
"""Cálculo de los cortes de la cadencia (cada N horas desde medianoche)."""
from datetime import datetime, timedelta


def next_notification_time(now: datetime, interval_hours: int = 2) -> datetime:
    """
    Siguiente corte estrictamente posterior a `now` entre las horas
    0, N, 2N... contadas desde la medianoche local, con minutos y segundos a 0.
    Con N=2: 13:10 -> 14:00, 14:00 -> 16:00, 23:30 -> 00:00 del día siguiente.
    """
    if interval_hours < 1:
        raise ValueError("interval_hours must be >= 1")
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed_hours = (now - midnight) // timedelta(hours=1)
    boundary = (elapsed_hours // interval_hours + 1) * interval_hours
    return midnight + timedelta(hours=boundary)


def fire_time(anchor: datetime, cycle: int, interval_hours: int) -> datetime:
    """Hora del ciclo n: siempre desde el ancla, sin acumular retrasos."""
    return anchor + timedelta(hours=interval_hours * cycle)
