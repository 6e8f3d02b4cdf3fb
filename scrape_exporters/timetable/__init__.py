"""Timetable exporter package"""
from scrape_exporters.timetable.source import ScheduleFile
from scrape_exporters.timetable.decoder import Schedule, ScheduleItem, decode_schedule
from scrape_exporters.timetable.watcher import ScheduleState, ScheduleWatcher, schedule_state
from scrape_exporters.timetable.collector import EventCollector

__all__ = [
    "ScheduleFile",
    "Schedule",
    "ScheduleItem",
    "decode_schedule",
    "ScheduleState",
    "ScheduleWatcher",
    "schedule_state",
    "EventCollector",
]
