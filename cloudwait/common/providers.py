# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Common methods for obtaining a reference to the provider driver class.
"""

import importlib

__all__ = [
    'get_driver',
    'set_driver'
]


def get_driver(drivers, provider):
    """
    Get a driver.

    :param drivers: Dictionary containing valid providers.
    :type drivers: ``dict``

    :param provider: Id (constant) of provider to get the driver for.
    :type provider: :class:`cloudwait.compute.types.Provider` or ``str``
    """
    if provider in drivers:
        mod_name, driver_name = drivers[provider]
        _mod = importlib.import_module(mod_name)
        return getattr(_mod, driver_name)

    # NOTE: A plain string value works as well as a Provider.FOO constant
    # because Provider overloads __eq__
    for provider_name, (mod_name, driver_name) in drivers.items():
        if str(provider).lower() == str(provider_name).lower():
            _mod = importlib.import_module(mod_name)
            return getattr(_mod, driver_name)

    raise AttributeError('Provider %s does not exist' % (provider))


def set_driver(drivers, provider, module, klass):
    """
    Sets a driver.

    :param drivers: Dictionary to store providers.
    :param provider: Id of provider to set driver for

    :type provider: :class:`cloudwait.compute.types.Provider`
    :param module: The module which contains the driver

    :type module: ``str``
    :param klass: The driver class name

    :type klass: ``str``
    """

    if provider in drivers:
        raise AttributeError('Provider %s already registered' % (provider))

    drivers[provider] = (module, klass)

    # Check if this driver is valid
    try:
        driver = get_driver(drivers, provider)
    except (ImportError, AttributeError) as exp:
        drivers.pop(provider)
        raise exp

    return driver
