# Mothership Module
# -*- coding: utf-8 -*-
"""
 Python service that coordinates a fleet of Arduino IoT Cloud "bees"

 For more information see README.md

 Features
    * Polls every configured Thing for its light sensor reading (ldr_value)
    * Aggregates readings into a fleet decision: low light and the "queen"
    * Publishes actuator outputs back to every Thing through the cloud API
    * Caches the cloud access token and refreshes it before it expires
    * Runs without credentials in mock mode for local development
    * FastAPI control surface to inspect state, force a sync, override
      outputs and start/stop polling

 Packages
    mothership.cloud      # Token provider and property gateways (live and mock)
    mothership.core       # Aggregator, output policy, state store, sync orchestrator
    mothership.models     # Pydantic models
    mothership.api        # FastAPI routers

 Functions
    set_debug(toggle, color)  # Enable verbose logging

 Requirements
    This module requires the following modules: requests, fastapi, uvicorn,
    pydantic, pydantic-settings, python-dotenv
"""
import logging
import sys

version_tuple = (0, 3, 0)
version = __version__ = '%d.%d.%d' % version_tuple
__author__ = 'mothership'

log = logging.getLogger(__name__)
log.debug('%s version %s', __name__, __version__)
log.debug('Python %s on %s', sys.version, sys.platform)


def set_debug(toggle=True, color=True):
    """Enable verbose logging"""
    if toggle:
        if color:
            logging.basicConfig(format='\x1b[31;1m%(levelname)s:%(message)s\x1b[0m', level=logging.DEBUG)
        else:
            logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.DEBUG)
        log.setLevel(logging.DEBUG)
        log.debug("%s [%s]\n" % (__name__, __version__))
    else:
        log.setLevel(logging.NOTSET)
