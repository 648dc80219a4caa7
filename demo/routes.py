"""
Route table of the demo application.
"""

from kestrel import Request, Router


def hello(request: Request) -> str:
    return "Hello from Kestrel!"


def json_example(request: Request) -> dict:
    return {"message": "JSON response from Kestrel"}


def register_routes(router: Router, app) -> None:
    router.get("/", "HomeController@index")
    router.get("/about", "HomeController@about")
    router.get("/contact", "HomeController@contact")
    router.post("/contact", "HomeController@send_contact")
    router.get("/info", "HomeController@info")

    router.get("/test", hello)
    router.get("/json", json_example)

    router.get("/users", "UserController@index")
    router.get("/users/create", "UserController@create")
    router.post("/users", "UserController@store")
    router.get("/users/{id}", "UserController@show")
    router.get("/users/{id}/edit", "UserController@edit")
    router.put("/users/{id}", "UserController@update")
    router.delete("/users/{id}", "UserController@destroy")

    with router.group(prefix="/api"):
        router.get("/users", "UserController@api_index")
        router.post("/users", "UserController@api_store")
        router.get("/users/{id}", "UserController@api_show")
        router.put("/users/{id}", "UserController@api_update")
        router.delete("/users/{id}", "UserController@api_destroy")
