def format_duration(seconds, fixed=False):
    """Format seconds as duration.
    - If fixed=False: MM:SS for <1h, HH:MM:SS for >=1h
    - If fixed=True: always HH:MM:SS
    """
    if not isinstance(seconds, (int, float)) or seconds < 0:
        return "--:--"
    elapsed = int(seconds)
    hours = elapsed // 3600
    minutes = (elapsed % 3600) // 60
    secs = elapsed % 60
    if fixed or hours > 0:
        return f"{hours:02}:{minutes:02}:{secs:02}"
    return f"{minutes:02}:{secs:02}"
