"""
Celery application bound to the Flask app.

Settings come from app.config["CELERY"]. Every task runs inside the Flask
application context so it can read config and use the shared storage; when a
task runs eagerly inside a request the existing context is reused.
"""
from celery import Celery, Task
from flask import Flask, has_app_context


def celery_init_app(app: Flask) -> Celery:
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask, include=["workers.tasks"])
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.conf.task_routes = {
        "workers.tasks.send_password_reset": {"queue": "mailers"},
    }
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app
