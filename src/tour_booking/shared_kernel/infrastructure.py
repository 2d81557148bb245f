"""
Общая инфраструктура: логгер, шина событий, блокировки по ключу
и базовое файловое хранилище.
"""
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterator,
    List,
    Optional,
    Type,
    TypeVar,
)

from pydantic import BaseModel

from . import interfaces as ports
from .domain import ConflictException, DomainEvent, PersistenceException

T = TypeVar("T", bound=BaseModel)


class ConsoleLogger(ports.ILogger):
    """Логгер, пишущий через стандартный модуль logging с контекстом в JSON."""

    def __init__(self, name: str = "tour_booking"):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, message: str, context: dict) -> None:
        if context:
            message = f"{message} | {json.dumps(context, default=str, ensure_ascii=False)}"
        self._logger.log(level, message)

    def info(self, message: str, **kwargs) -> None:
        self._emit(logging.INFO, message, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._emit(logging.ERROR, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._emit(logging.WARNING, message, kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._emit(logging.DEBUG, message, kwargs)


class InMemoryEventBus(ports.IEventBus):
    """Реализация шины событий в памяти."""

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._subscribers: Dict[Type[DomainEvent], list] = {}
        self._logger = logger or ConsoleLogger()

    def publish(self, event: DomainEvent) -> None:
        """Публикует событие."""
        event_type = type(event)
        if event_type not in self._subscribers:
            self._logger.debug(f"No subscribers for event type {event_type.__name__}")
            return

        self._logger.info(
            f"Publishing event: {event_type.__name__}", event=event.model_dump(mode="json")
        )

        for handler in self._subscribers[event_type]:
            try:
                handler(event)
            except Exception as e:
                self._logger.error(
                    f"Error in event handler for {event_type.__name__}",
                    error=str(e),
                    event=event.model_dump(mode="json"),
                )

    def subscribe(self, event_type: Type[DomainEvent], handler) -> None:
        """Подписывает обработчик на события указанного типа."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        self._logger.debug(f"Subscribed handler to {event_type.__name__} events")


class KeyedLock:
    """
    Набор взаимоисключающих блокировок, по одной на ключ ресурса.

    Ожидание ограничено таймаутом: если ресурс не освободился вовремя,
    выбрасывается ConflictException, и вызывающий может повторить запрос.
    Блокировка ключа удаляется, когда ее никто не держит и не ждет.
    """

    def __init__(self, name: str, timeout: float = 5.0):
        self._name = name
        self._timeout = timeout
        # ключ -> [блокировка, число владельцев и ожидающих]
        self._locks: Dict[Hashable, list] = {}
        self._registry = threading.Lock()

    def active_keys(self) -> int:
        """Число ключей, которые сейчас удерживаются или ожидаются."""
        with self._registry:
            return len(self._locks)

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._registry:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._registry:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self._timeout):
                raise ConflictException(
                    f"Ресурс {self._name} {key} занят, повторите попытку",
                    resource=f"{self._name}:{key}",
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class JsonFileStore(Generic[T]):
    """Базовое хранилище моделей в JSON-файле."""

    def __init__(
        self,
        file_path: str,
        model_class: Type[T],
        key: Callable[[T], Hashable],
        logger: Optional[ports.ILogger] = None,
    ):
        """
        Инициализирует хранилище.

        Args:
            file_path: Путь к JSON-файлу с данными
            model_class: Класс модели данных
            key: Функция, возвращающая ключ записи
        """
        self._file_path = Path(file_path)
        self._model_class = model_class
        self._key = key
        self._logger = logger or ConsoleLogger()
        self._io_lock = threading.RLock()
        self._data: Dict[Hashable, T] = {}
        self._load_data()

    def _load_data(self) -> None:
        """Загружает данные из JSON-файла."""
        if not self._file_path.exists():
            self._data = {}
            return

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = f.read()
        except OSError as e:
            raise PersistenceException(f"Не удалось прочитать {self._file_path}: {e}") from e

        if not raw_data.strip():
            self._data = {}
            return

        items = json.loads(raw_data)
        loaded = (self._model_class.model_validate(item) for item in items)
        self._data = {self._key(item): item for item in loaded}

    def _save_data(self) -> None:
        """Сохраняет данные в JSON-файл (через временный файл и атомарную замену)."""
        data = [item.model_dump(mode="json") for item in self._data.values()]
        tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            self._logger.error("Ошибка записи хранилища", path=str(self._file_path), error=str(e))
            raise PersistenceException(f"Не удалось записать {self._file_path}: {e}") from e

    def get(self, key: Hashable) -> Optional[T]:
        with self._io_lock:
            item = self._data.get(key)
            return item.model_copy(deep=True) if item is not None else None

    def put(self, item: T) -> None:
        with self._io_lock:
            key = self._key(item)
            previous = self._data.get(key)
            self._data[key] = item.model_copy(deep=True)
            try:
                self._save_data()
            except PersistenceException:
                # В памяти остается то же, что и на диске
                if previous is None:
                    del self._data[key]
                else:
                    self._data[key] = previous
                raise

    def delete(self, key: Hashable) -> Optional[T]:
        with self._io_lock:
            item = self._data.pop(key, None)
            if item is None:
                return None
            try:
                self._save_data()
            except PersistenceException:
                self._data[key] = item
                raise
            return item

    def values(self) -> List[T]:
        with self._io_lock:
            return [item.model_copy(deep=True) for item in self._data.values()]
