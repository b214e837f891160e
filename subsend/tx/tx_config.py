import copy


class TxConfig:
    def __init__(self, config=None):
        self.url = None
        self.type_registry_preset = None
        self.ss58_format = None
        self.wait_for_finalization = True
        self.timeout = None
        self.skip = False
        self._set_config(config)

    def _set_config(self, config):
        """
        Extract the `_`-prefixed settings of one config level. Anything not mentioned keeps the value
        inherited from the outer level.

        :param config: JSON dict of the tx config
        :type config: dict
        """
        if type(config) is list:
            return

        if config is None:
            return

        url = config.get("_url", None)
        if url is not None:
            self.url = url

        type_registry_preset = config.get("_type_registry_preset", None)
        if type_registry_preset is not None:
            self.type_registry_preset = type_registry_preset

        ss58_format = config.get("_ss58_format", None)
        if ss58_format is not None:
            self.ss58_format = int(ss58_format)

        wait_for_finalization = config.get("_wait_for_finalization", None)
        if wait_for_finalization is not None:
            self.wait_for_finalization = wait_for_finalization

        timeout = config.get("_timeout", None)
        if timeout is not None:
            self.timeout = float(timeout)

        skip = config.get("_skip", None)
        if skip is not None:
            self.skip = skip

    def create_inner_config(self, config):
        """
        creates a config that can be nested to lower layers

        :param config: JSON dict of the tx config
        :type config: dict
        """
        result = copy.deepcopy(self)
        result._set_config(config)
        return result
