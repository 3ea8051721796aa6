"""
CSV generator for simulated sensor readings.
"""

import csv
import math
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import pytz

HEADER = ['timestamp', 'sensor_name', 'value']

Reading = Tuple[datetime, str, float]


class SensorCSVGenerator:
    """Generates sensor CSV files for local import runs."""

    def __init__(self, days: int = 7, seed: int = None, end: datetime = None):
        self.days = days
        self.random = random.Random(seed)
        end = end or datetime.now(pytz.UTC)
        self.start = (end - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)

    def _series(self, step: timedelta, steps_per_day: int, sensors: List[str],
                value_fn: Callable[[datetime, int, int], float]) -> List[Reading]:
        readings = []
        for day in range(self.days):
            day_start = self.start + timedelta(days=day)
            for i in range(steps_per_day):
                timestamp = day_start + step * i
                for j, sensor in enumerate(sensors):
                    readings.append((timestamp, sensor, value_fn(timestamp, i, j)))
        return readings

    def temperature(self) -> List[Reading]:
        sensors = [f"temp_sensor_{n:02d}" for n in range(1, 5)]

        def value(ts, i, j):
            hour_angle = ts.hour * math.pi / 12
            base = 20.0 + 8.0 * math.sin(hour_angle - math.pi / 2)  # daily cycle
            return base + self.random.uniform(-1, 1) + j * 0.5

        return self._series(timedelta(minutes=5), 288, sensors, value)

    def humidity(self) -> List[Reading]:
        sensors = ["humidity_sensor_01", "humidity_sensor_02"]

        def value(ts, i, j):
            base = 70.0 - i / 480 * 15  # drifts from 70% to 55% over the shift
            return max(30.0, min(95.0, base + self.random.uniform(-2, 2) + j * 2.0))

        return self._series(timedelta(minutes=1), 480, sensors, value)

    def pressure(self) -> List[Reading]:
        sensors = [f"pressure_sensor_{n:02d}" for n in range(1, 4)]

        def value(ts, i, j):
            variation = math.sin(i * math.pi / 12) * 2
            return 1013.25 + variation + self.random.uniform(-0.25, 0.25) + j * 0.1

        return self._series(timedelta(hours=1), 24, sensors, value)

    def light(self) -> List[Reading]:
        sensors = [f"light_sensor_{n:02d}" for n in range(1, 6)]

        def value(ts, i, j):
            hour = ts.hour + ts.minute / 60
            if hour < 6 or hour > 18:
                level = self.random.uniform(0, 10)
            else:
                sun_angle = (hour - 6) * math.pi / 12
                level = 1000 * math.sin(sun_angle) * self.random.uniform(0.8, 1.2)
            return max(0.0, level + j * 20 + self.random.uniform(-25, 25))

        return self._series(timedelta(minutes=1), 720, sensors, value)

    def vibration(self) -> List[Reading]:
        sensors = [f"vibration_sensor_{n:02d}" for n in range(1, 4)]

        def value(ts, i, j):
            spike = 5.0 if self.random.random() < 0.01 else 0.0
            return abs(self.random.gauss(0.5 + j * 0.1, 0.1)) + spike

        return self._series(timedelta(seconds=30), 2880, sensors, value)

    def generators(self) -> Dict[str, Callable[[], List[Reading]]]:
        return {
            "temperature_hourly.csv": self.temperature,
            "humidity_realtime.csv": self.humidity,
            "pressure_daily.csv": self.pressure,
            "light_sensors.csv": self.light,
            "vibration_sensors.csv": self.vibration,
        }

    @staticmethod
    def write_csv(output_path: Path, readings: List[Reading]) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(HEADER)
            for timestamp, sensor, value in readings:
                writer.writerow([timestamp.strftime('%Y-%m-%dT%H:%M:%SZ'), sensor, f"{value:.4f}"])

    def generate(self, output_dir: str) -> Dict[str, int]:
        """Write every sample file; returns record counts by file name."""
        output = Path(output_dir)
        output.mkdir(parents=True, exist_ok=True)

        counts = {}
        for filename, generate in self.generators().items():
            readings = generate()
            self.write_csv(output / filename, readings)
            counts[filename] = len(readings)
            print(f"✅ Generated {filename} with {len(readings)} records")

        return counts
