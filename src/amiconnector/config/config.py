import os
import platform

from configobj import ConfigObj, ConfigObjError, flatten_errors
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'

# The name of the client configuration shipped with this package
client_config_name = 'amiconnector'


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory, name + config_extension)
    return config_file


def config_directory():
    """ the directory holding the configuration files shipped with this package. """
    return os.path.dirname(os.path.abspath(__file__))


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    config = load_config_file_base(file, False)
    return config


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def describe_errors(config, result):
    """
    >>> describe_errors(ConfigObj(), True)
    ''
    """
    errors = []
    for section_list, key, error in flatten_errors(config, result):
        section = '/'.join(section_list) or '<root>'
        if key is None:
            errors.append("section %s is missing" % section)
        else:
            errors.append("%s in section %s: %s" % (key, section, error or 'missing'))
    return '; '.join(errors)


def load_config(name, directory, schema_directory=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are merged in this order, later ones taking precedence:
        - the default specialization
        - the platform specialization
        - the user override in the home directory
        - the base configuration
        The merged configuration is validated against the "schema" specialization, which
        also supplies the values no file defines.
    :directory: the location of the configuration files
    :schema_directory: the location of the schema, by default the same directory
    :return: the validated configuration
    :raises ConfigObjError: when the configuration does not validate.
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.expanduser(
        '~/' + name + config_extension), must_exist=False)
    config = ConfigObj(configspec=config_filename(config_flavor(name, 'schema'), schema_directory or directory))
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    validator = Validator()
    result = config.validate(validator, preserve_errors=True)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation: %s" % (name, describe_errors(config, result)))
    return config


def load_client_config(directory=None, name=client_config_name):
    """
    Loads the client configuration. The [manager] section describes the manager to connect to.
    :param directory: where the configuration files are found. By default, the files shipped with this package,
        so that only ~/amiconnector.cfg need be written to override the defaults.
    """
    return load_config(name, directory or config_directory(), config_directory())
