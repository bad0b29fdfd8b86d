def paginate(q, page: int = 1, size: int = 20, max_size: int = 200):
    """Return (rows, total, page, size) for a query with simple page math."""
    if page < 1:
        page = 1
    if size < 1:
        size = 20
    size = min(size, max_size)
    total = q.count()
    rows = q.offset((page - 1) * size).limit(size).all()
    return rows, total, page, size
