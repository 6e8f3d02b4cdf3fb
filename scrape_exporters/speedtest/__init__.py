"""Speedtest exporter package"""
from scrape_exporters.speedtest.runner import CommandRunner
from scrape_exporters.speedtest.decoder import SpeedtestMeasurement, decode_speedtest
from scrape_exporters.speedtest.collector import OnDemandRefresher, SpeedtestCollector

__all__ = [
    "CommandRunner",
    "SpeedtestMeasurement",
    "decode_speedtest",
    "OnDemandRefresher",
    "SpeedtestCollector",
]
