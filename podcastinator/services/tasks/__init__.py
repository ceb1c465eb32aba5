from .base import BaseContentTask
from .cross_section_task import CrossSectionTask
from .outline_task import OutlineTask
from .section_task import PART_INTRO, PART_OUTRO, PART_SECTION, SectionScriptTask, part_type_for

__all__ = [
    "BaseContentTask",
    "CrossSectionTask",
    "OutlineTask",
    "SectionScriptTask",
    "PART_INTRO",
    "PART_OUTRO",
    "PART_SECTION",
    "part_type_for",
]
