from .string_handlers import (
    CRLF,
    remove_last_newline,
    terminate_line,
    has_line_terminator,
    )
from .json_handlers import (
    load_config,
    )
from .addr_handlers import (
    format_addr,
    parse_addr,
    )
from .id_handlers import (
    generate_sid,
    new_inbox,
    )
from .client_socket_configs import SocketConfig
