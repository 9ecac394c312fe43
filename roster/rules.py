"""
Fixed roster rules.

Only comma-delimited, double-quote-escaped text is supported; there is no
dialect detection.
"""

TARGET_ENCODING = "utf-8-sig"  # UTF-8 with BOM
DELIMITER = ","
QUOTE = '"'

GROUPS = ("A", "B", "C")
DEFAULT_GROUP = "A"
ALL_SCOPE = "ALL"
SCOPES = (ALL_SCOPE,) + GROUPS

DEFAULT_NUMBER = 1
NAME_PLACEHOLDER = "이름없음"

# Column order for both import and export.
COLUMNS = ("grade", "school_class", "number", "group", "name", "phone", "remarks")
EXPORT_HEADER = ("학년", "반", "번호", "방과후그룹", "이름", "전화번호", "비고")

STORAGE_KEY = "edu_track_students"

IMPORT_SUCCESS_MESSAGE = "{count}명의 학생이 성공적으로 등록되었습니다."
IMPORT_FAILURE_MESSAGE = "데이터를 읽어오지 못했습니다. CSV 형식을 확인해주세요."
EXPORT_EMPTY_MESSAGE = "내보낼 학생 데이터가 없습니다."
ANALYSIS_EMPTY_MESSAGE = "분석할 학생 데이터가 없습니다."
DELETE_PROMPT = "정말 이 학생의 정보를 삭제하시겠습니까?"
