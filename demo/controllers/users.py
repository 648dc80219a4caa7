"""
User management: HTML CRUD pages plus a JSON API under ``/api/users``.
"""

from typing import Optional

from kestrel import Controller

from ..models.user import User, now

CREATE_RULES = {
    "name": "required|string|min:2",
    "email": "required|email",
    "password": "required|string|min:6",
}

UPDATE_RULES = {
    "name": "required|string|min:2",
    "email": "required|email",
    "password": "string|min:6",
}


def find_user(id: str) -> Optional[User]:
    if not str(id).isdigit():
        return None
    return User.find(int(id))


def email_taken(email: str, ignore_id: Optional[int] = None) -> bool:
    existing = User.where_first("email", email)
    return existing is not None and existing.get_key() != ignore_id


def apply_input(user: User, data) -> None:
    user.set("name", data["name"]).set("email", data["email"])
    if data.get("password"):
        user.set_password(data["password"])
    user.set("updated_at", now())


class UserController(Controller):
    # ========================================================================
    # HTML
    # ========================================================================

    def index(self):
        users = User.query().order_by("id").paginate(per_page=10, request=self.request)
        return self.view("users.index", {"title": "Users", "users": users})

    def show(self, id):
        user = find_user(id)
        if user is None:
            self.flash("error", "User not found.")
            return self.redirect("/users")
        return self.view("users.show", {"title": "User Details", "user": user})

    def create(self):
        return self.view("users.create", {"title": "Create User"})

    def store(self):
        data = self.input()
        if self.validate(data, CREATE_RULES):
            return self.redirect("/users/create")

        if email_taken(data["email"]):
            self.session.set_old_input(data)
            self.flash("error", "A user with this email already exists.")
            return self.redirect("/users/create")

        user = User({"name": data["name"], "email": data["email"], "created_at": now()})
        user.set_password(data["password"])
        user.save()
        self.flash("success", "User created successfully.")
        return self.redirect("/users")

    def edit(self, id):
        user = find_user(id)
        if user is None:
            self.flash("error", "User not found.")
            return self.redirect("/users")
        return self.view("users.edit", {"title": "Edit User", "user": user})

    def update(self, id):
        user = find_user(id)
        if user is None:
            self.flash("error", "User not found.")
            return self.redirect("/users")

        data = self.input()
        if self.validate(data, UPDATE_RULES):
            return self.redirect(f"/users/{id}/edit")

        if email_taken(data["email"], ignore_id=user.get_key()):
            self.flash("error", "A user with this email already exists.")
            return self.redirect(f"/users/{id}/edit")

        apply_input(user, data)
        if user.save():
            self.flash("success", "User updated successfully.")
            return self.redirect("/users")
        self.flash("error", "Failed to update user.")
        return self.redirect(f"/users/{id}/edit")

    def destroy(self, id):
        user = find_user(id)
        if user is None:
            self.flash("error", "User not found.")
        elif user.delete():
            self.flash("success", "User deleted successfully.")
        else:
            self.flash("error", "Failed to delete user.")
        return self.redirect("/users")

    # ========================================================================
    # JSON API
    # ========================================================================

    def api_index(self):
        return self.success({"users": [user.to_array() for user in User.all()]})

    def api_show(self, id):
        user = find_user(id)
        if user is None:
            return self.error("User not found.", 404)
        return self.success({"user": user.to_array()})

    def api_store(self):
        data = self.input()
        self.validate_or_fail(data, CREATE_RULES)
        if email_taken(data["email"]):
            return self.error("A user with this email already exists.", 409)

        user = User({"name": data["name"], "email": data["email"], "created_at": now()})
        user.set_password(data["password"])
        user.save()
        return self.success({"user": user.to_array()}, "User created successfully.")

    def api_update(self, id):
        user = find_user(id)
        if user is None:
            return self.error("User not found.", 404)

        data = self.input()
        self.validate_or_fail(data, UPDATE_RULES)
        if email_taken(data["email"], ignore_id=user.get_key()):
            return self.error("A user with this email already exists.", 409)

        apply_input(user, data)
        if not user.save():
            return self.error("Failed to update user.", 500)
        return self.success({"user": user.to_array()}, "User updated successfully.")

    def api_destroy(self, id):
        user = find_user(id)
        if user is None:
            return self.error("User not found.", 404)
        if not user.delete():
            return self.error("Failed to delete user.", 500)
        return self.success({}, "User deleted successfully.")
