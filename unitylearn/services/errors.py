class AppError(ValueError):
    """서비스 계층 검증 오류. code 는 화면에서 메시지를 고르는 데 쓴다"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self):
        return f"AppError({self.code!r}, {self.message!r})"
