def format_elapsed(seconds):
    """Format a duration as "[N days, ]H:MM:SS"."""
    seconds = int(max(seconds, 0))
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    out = '%u:%02u:%02u' % (hours, minutes, seconds)
    if days:
        out = '%u days, %s' % (days, out)
    return out


def percent(done, total):
    if not total:
        return 100.0 if done else 0.0
    return 100.0 * done / total


def hits_total(hits):
    """hits.total is an int on older engines and {"value": n, "relation": ...} on newer ones."""
    total = hits.get('total', 0)
    if isinstance(total, dict):
        total = total.get('value', 0)
    return int(total or 0)
