class ToolExecutionError(Exception):
    """
    Tool failure with a user-facing message and technical details.

    The user message is what the customer sees; technical details only go
    to the logs.
    """

    def __init__(self, tool_name: str, user_message: str, technical_details: str = ""):
        super().__init__(f"[{tool_name}] {user_message}")
        self.tool_name = tool_name
        self.user_message = user_message
        self.technical_details = technical_details or "Unknown error"

    def message_for_user(self) -> str:
        return (
            f"La operación '{self.tool_name}' no pudo completarse: {self.user_message}. "
            "Por favor, verifica los datos e intenta nuevamente."
        )
