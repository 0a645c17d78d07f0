from file_center.models.file_chunk import FileChunk
from file_center.models.file_record import FileRecord
from file_center.models.setting import FileCenterSetting

__all__ = ["FileChunk", "FileRecord", "FileCenterSetting"]
