from cardflow.logs.server_log import api_logger
from cardflow.logs.debug_log import debug_logger, log_function
