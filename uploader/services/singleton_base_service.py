from abc import ABC
from typing import ClassVar, Dict, Type, Self


class SingletonBaseService(ABC):
    """
    Process-wide shared instance, reachable through ``get_instance``.

    Constructing the class directly still builds an independent instance, so
    alternate wirings (tests, scripts) do not replace the shared one.
    """

    _instances: ClassVar[Dict[Type[Self], Self]] = {}

    @classmethod
    def get_instance(cls: Type[Self]) -> Self:
        if cls not in cls._instances:
            cls._instances[cls] = cls()

        return cls._instances[cls]
