from servicekit.core.app_factory import create_app
from servicekit.core.config import settings
from servicekit.core.logging import configure_logging
from servicekit.services.hello_service import HelloService
from servicekit.services.host import ServicesHost
from servicekit.services.service import default_rate_limiter

configure_logging(settings.log)

services_host = ServicesHost()
services_host.register_service("hello", HelloService(rate_limiter=default_rate_limiter()))

app = create_app(services_host)


def run() -> None:
    """Serve the local services host with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.host.host, port=settings.host.port)


if __name__ == "__main__":
    run()
