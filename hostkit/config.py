"""
config.py
=========

The optional YAML answers file. Every value given here answers the
corresponding prompt, so a task can run without a terminal::

    docker:
      add-user-to-group: true
    k3s:
      install: true
      ingress: ingress-nginx
      metallb: true
      metallb-pool: 192.168.0.240-192.168.0.250
    user:
      name: deploy
"""
import copy

import yaml

SCHEMA = {
    'docker': {
        'add-user-to-group': bool,
        'user': str,
    },
    'k3s': {
        'install': bool,
        'want-ingress': bool,
        'ingress': str,
        'metallb': bool,
        'metallb-pool': str,
        'ready-retries': int,
        'ready-interval': (int, float),
    },
    'user': {
        'name': str,
        'update-existing': bool,
    },
}

DEFAULTS = {
    'docker': {},
    'k3s': {
        'ready-retries': 30,
        'ready-interval': 2,
    },
    'user': {},
}

INGRESS_CHOICES = ('none', 'traefik', 'ingress-nginx')


def validate_config(config):
    """Check sections, keys and value types of a parsed configuration.

    Args:
        config (dict): the parsed YAML

    Returns:
        The configuration if valid.

    Raises:
        ValueError if the configuration is invalid.
    """
    if not isinstance(config, dict):
        raise ValueError("configuration must be a mapping")

    for section, values in config.items():
        if section not in SCHEMA:
            raise ValueError(f"unknown configuration section '{section}'")
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"section '{section}' must be a mapping")
        for key, value in values.items():
            if key not in SCHEMA[section]:
                raise ValueError(f"unknown key '{key}' in section '{section}'")
            expected = SCHEMA[section][key]
            # a blank text value is an empty answer
            if value is None and expected is str:
                continue
            # bool is an int, but "retries: true" is a mistake
            if (not isinstance(value, expected) or
                    (isinstance(value, bool) and expected is not bool)):
                raise ValueError(f"{section}.{key} has an invalid value "
                                 f"{value!r}")

    ingress = (config.get('k3s') or {}).get('ingress')
    if ingress is not None and ingress not in INGRESS_CHOICES:
        raise ValueError("k3s.ingress must be one of "
                         f"{', '.join(INGRESS_CHOICES)}")

    return config


def load_config(path=None):
    """Load the answers file and merge it with the defaults.

    Args:
        path (str): the YAML file, if None only the defaults are returned

    Returns:
        A dict with one dict per section.
    """
    config = copy.deepcopy(DEFAULTS)
    if not path:
        return config

    with open(path, 'r') as stream:
        loaded = yaml.safe_load(stream) or {}

    validate_config(loaded)

    for section, values in loaded.items():
        config[section].update(values or {})

    return config
