from typing import FrozenSet, Iterator, Set


class SubscriptionRegistry:
    """
    서버가 구독 ack 를 보낸 채널 이름 집합.
    dispatch 경로(클라이언트 lock 안)에서만 변경되므로 자체 lock 은 없다.
    """

    def __init__(self) -> None:
        self._channels: Set[str] = set()

    def add(self, channel: str) -> None:
        self._channels.add(channel)

    def remove(self, channel: str) -> None:
        self._channels.discard(channel)

    def has(self, channel: str) -> bool:
        return channel in self._channels

    def all(self) -> FrozenSet[str]:
        return frozenset(self._channels)

    def clear(self) -> None:
        self._channels.clear()

    def __contains__(self, channel: object) -> bool:
        return channel in self._channels

    def __iter__(self) -> Iterator[str]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._channels)

    def __repr__(self) -> str:
        return f"SubscriptionRegistry({sorted(self._channels)!r})"
