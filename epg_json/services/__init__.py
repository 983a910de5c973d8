"""
Services package for epg-json

This package contains all business logic and service layer components.
"""
from epg_json.services.epg_convert_service import convert_epg, EPGConvertPipeline
from epg_json.services.image_db_service import update_image_database
from epg_json.services.image_resolver import ImageResolver, ImageSourceConfig
from epg_json.services.scheduler_service import EPGScheduler
from epg_json.services.xmltv_parser_service import parse_programmes

__all__ = [
    'convert_epg',
    'EPGConvertPipeline',
    'update_image_database',
    'ImageResolver',
    'ImageSourceConfig',
    'EPGScheduler',
    'parse_programmes',
]
