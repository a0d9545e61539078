class WindowTotals:
    """
    WindowTotals: tracks the effective token total of every
    usage event seen in one window.

    Prevents double-counting events that appear on several log
    lines or in several files by keying on the record identifier.
    Repeated observations keep the maximum value, never the sum,
    since a later line may repeat or supersede an earlier partial
    write of the same event.

    Not thread-safe: one instance belongs to a single refresh.
    """

    def __init__(self) -> "None":
        self._max_by_id: "dict[str, float]" = {}

    def observe(self, identifier: "str", total: "float") -> "bool":
        """
        records total for identifier. Returns True if it raised the
        stored value (including the first observation).
        """
        current = self._max_by_id.get(identifier)
        if current is not None and current >= total:
            return False

        self._max_by_id[identifier] = total
        return True

    def total(self) -> "int":
        """
        sums the per-identifier maxima, rounded to whole tokens.
        """
        return int(round(sum(self._max_by_id.values())))

    def __len__(self) -> "int":
        return len(self._max_by_id)
