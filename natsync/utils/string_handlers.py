CRLF = "\r\n"

def remove_last_newline(s: str):
    if s.endswith('\r\n'):
        return s[:-2]
    return s[:-1] if s.endswith('\n') else s

def terminate_line(data: bytes):
    # Always appended: a payload may itself end in CRLF
    return data + b'\r\n'

def has_line_terminator(data: bytes):
    return data.endswith(b'\n')
