# Small threshold so chunked paths are exercised with tiny payloads
TEST_THRESHOLD = 64


class URLs:
    FILES = "/api/v1/files"
    FILE = "/api/v1/files/{}"
    FILE_EXISTS = "/api/v1/files/{}/exists"
    GARBAGE = "/api/v1/files/garbage"
