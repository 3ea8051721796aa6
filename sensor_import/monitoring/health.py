"""
Database health and content statistics for the db-info command.
"""

import logging
from typing import Dict, Any
from datetime import datetime

logger = logging.getLogger(__name__)


class DatabaseInfo:
    """Reports connectivity, pool details and sensor_data statistics."""

    def __init__(self, db, driver: str):
        self.db = db
        self.driver = driver

    def check_database_health(self) -> Dict[str, Any]:
        """Check database connectivity and measure round-trip time."""
        start_time = datetime.now()
        is_healthy = self.db.health_check()

        return {
            'status': 'healthy' if is_healthy else 'unhealthy',
            'response_time_ms': int((datetime.now() - start_time).total_seconds() * 1000),
            'timestamp': datetime.now().isoformat()
        }

    def get_data_statistics(self) -> Dict[str, Any]:
        """Record count, distinct sensors and the stored time range."""
        try:
            rows = self.db.execute_query("""
                SELECT
                    COUNT(*) AS total_records,
                    COUNT(DISTINCT sensor_name) AS unique_sensors,
                    MIN(timestamp) AS earliest,
                    MAX(timestamp) AS latest
                FROM sensor_data
            """)
        except Exception as e:
            logger.error(f"Failed to get data statistics: {e}")
            return {'error': str(e)}

        stats = rows[0] if rows else {}
        return {
            'total_records': stats.get('total_records', 0),
            'unique_sensors': stats.get('unique_sensors', 0),
            'earliest': stats.get('earliest'),
            'latest': stats.get('latest'),
        }

    def get_info(self) -> Dict[str, Any]:
        health = self.check_database_health()
        info = {
            'driver': self.driver,
            'connected': health['status'] == 'healthy',
            'response_time_ms': health['response_time_ms'],
            'pool': self.db.pool_stats(),
        }
        if info['connected']:
            info['data'] = self.get_data_statistics()
        return info

    def render(self) -> str:
        info = self.get_info()
        lines = [
            "Database Information:",
            "=" * 50,
            f"Database Type:     {info['driver']}",
            f"Connection Status: {'✓ Connected' if info['connected'] else '✗ Disconnected'}",
        ]

        pool = info['pool']
        if 'path' in pool:
            lines.append(f"File Path:         {pool['path']}")
        else:
            lines.append("\nConnection Pool:")
            lines.append(f"  Max Connections: {pool.get('max_connections')}")
            lines.append(f"  In Use:          {pool.get('in_use', 0)}")
            lines.append(f"  Available:       {pool.get('available', 0)}")

        data = info.get('data')
        if data is None:
            lines.append("\nConnection failed - unable to retrieve detailed information")
        elif 'error' in data:
            lines.append(f"\nData Information unavailable: {data['error']}")
        else:
            lines.append("\nData Information:")
            lines.append(f"  Total Records:   {data['total_records']}")
            lines.append(f"  Unique Sensors:  {data['unique_sensors']}")
            if data['total_records']:
                lines.append(f"  Date Range:      {data['earliest']} to {data['latest']}")

        lines.append("=" * 50)
        return "\n".join(lines)
