"""
Home page, about, contact form and system information.
"""

import platform

from kestrel import Controller

FEATURES = [
    "Lightweight and Fast",
    "Secure by Default",
    "Active Record Models",
    "Blade Templating",
    "Email Support",
    "Easy to Extend",
]


class HomeController(Controller):
    def index(self):
        return self.view("home.index", {
            "title": "Welcome to Kestrel",
            "description": "Minimal MVC. Maximum Control.",
            "features": FEATURES,
        })

    def about(self):
        return self.view("home.about", {
            "title": "About Kestrel",
            "version": self.app.version(),
            "description": "A lightweight, secure Python MVC framework.",
        })

    def contact(self):
        return self.view("home.contact", {"title": "Contact Us"})

    def send_contact(self):
        data = self.input()
        errors = self.validate(data, {
            "name": "required|string|min:2",
            "email": "required|email",
            "message": "required|string|min:10",
        })
        if errors:
            return self.redirect("/contact")

        sent = self.send_email_view(
            self.app.config.get("mail.from.address"),
            "New Contact Form Submission",
            "emails.contact",
            {"name": data["name"], "email": data["email"], "message": data["message"]},
            {"reply_to": data["email"]},
        )
        if sent:
            self.flash("success", "Thank you for your message! We will get back to you soon.")
        else:
            self.flash("error", "Sorry, there was an error sending your message. Please try again.")
        return self.redirect("/contact")

    def info(self):
        config = self.app.config
        return self.json({
            "framework": "Kestrel",
            "version": self.app.version(),
            "python_version": platform.python_version(),
            "environment": config.app_env,
            "debug": config.is_debug(),
            "database": {"driver": self.app.database.driver},
            "mail": {
                "mailer": config.get("mail.mailer"),
                "host": config.get("mail.host"),
            },
        })
