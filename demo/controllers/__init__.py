from .home import HomeController
from .users import UserController

__all__ = ["HomeController", "UserController"]
