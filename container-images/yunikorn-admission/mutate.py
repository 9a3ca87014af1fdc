import functools
import logging
import pydantic

from flask import Flask, request, jsonify, current_app

from models import (
    BaseModel,
    AdmissionReview,
)

from admission import AdmissionController
from cache import NamespaceCache, PriorityClassCache
from conf import AdmissionConf
from providers import CacheWatcher, KubernetesProvider
from exc import ApplicationError

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class DEFAULTS:
    PROVIDER = KubernetesProvider
    WATCH_CLUSTER = True
    # YuniKorn admission controller settings, keyed by their
    # admissionController.* names.
    ADMISSION_CONF = {}


def jsonresponse():
    """Transforms the response from a view function into a JSON object."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            res = func(*args, **kwargs)
            if isinstance(res, BaseModel):
                return jsonify(res.model_dump(mode="json", exclude_none=True))
            else:
                return jsonify(res)

        return _inner

    return _outer


@jsonresponse()
def mutate():
    body = AdmissionReview(**request.get_json())
    response = current_app.controller.mutate(body.request)
    return AdmissionReview(response=response)


@jsonresponse()
def validate_conf():
    body = AdmissionReview(**request.get_json())
    response = current_app.controller.validate_conf(body.request)
    return AdmissionReview(response=response)


def handle_validationerror(err):
    return str(err), 400, {"content-type": "text/plain"}


def handle_applicationerror(err):
    return str(err), 500, {"content-type": "text/plain"}


def health():
    return "OK", 200, {"content-type": "text/plain"}


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    Settings come from DEFAULTS, then from YUNIKORN_* environment variables,
    then from keyword arguments, so tests can replace the cluster provider
    and the admission settings before the app is built.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    app.config.from_prefixed_env("YUNIKORN")
    if config:
        app.config.update(config)

    ns_cache = NamespaceCache()
    pc_cache = PriorityClassCache()
    app.watcher = None
    if app.config["WATCH_CLUSTER"]:
        provider = app.config["PROVIDER"]()
        app.watcher = CacheWatcher(provider, ns_cache, pc_cache)
        app.watcher.start()

    conf = AdmissionConf.from_mapping(app.config["ADMISSION_CONF"])
    LOG.info("using scheduler service at %s", conf.scheduler_service_address)
    app.controller = AdmissionController(conf, pc_cache, ns_cache)

    app.errorhandler(pydantic.ValidationError)(handle_validationerror)
    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/mutate", view_func=mutate, methods=["POST"])
    app.add_url_rule("/validate-conf", view_func=validate_conf, methods=["POST"])

    return app
