from datetime import datetime

from pythonjsonlogger import jsonlogger


class JsonLogFormatter(jsonlogger.JsonFormatter):
    copy_fields = ['filename', 'lineno', 'module', 'process', 'processName', 'threadName']

    def add_fields(self, log_record, record, message_dict):
        from resource_labels.api.convert import current_resource

        super(JsonLogFormatter, self).add_fields(log_record, record, message_dict)
        log_record['@timestamp'] = datetime.now().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        # attributes of the resource being converted when the record was logged
        resource = current_resource.get()
        if resource is not None:
            log_record['resource'] = {key: str(value) for key, value in resource.attributes.items()}

        for name in self.copy_fields:
            if hasattr(record, name):
                value = getattr(record, name)
                if value is not None:
                    log_record[name] = str(value)
