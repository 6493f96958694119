"""
AuditRecorder - Registro de auditoria de cambios del sync.

Escribe cada evento en dos representaciones paralelas:
- Texto legible: una linea por campo cambiado (viejo -> nuevo)
- JSONL: un objeto JSON por evento, para procesamiento automatico

Ambos archivos rotan a medianoche y se retiene un numero fijo de archivos
por canal (la poda corre al abrir y al cerrar el recorder).
La auditoria es advisory: un fallo de escritura nunca aborta el sync.
"""
import json
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from employee_sync.domain.entities.sync_results import ChangeRecord, SyncSummary
from employee_sync.shared.exceptions.sync import AuditWriteException
from employee_sync.shared.utils.date_utils import utc_now


EMPTY_VALUE = "(vacío)"


def _render(value: Any) -> str:
    if value is None:
        return EMPTY_VALUE
    if value == "":
        return '""'
    return str(value)


class TextAuditFormatter:
    """Formato legible. Cada evento es un solo bloque (una sola escritura)."""

    def format_change(self, change: ChangeRecord) -> str:
        if change.is_new_record:
            return f"CREATE {change.display_name} (ID: {change.external_id})"
        lines = [
            f"UPDATE {change.display_name} (ID: {change.external_id}) - "
            f"{len(change.changes)} campo(s) cambiado(s)"
        ]
        for fc in change.changes:
            lines.append(f"  {fc.field_name}: {_render(fc.old_value)} -> {_render(fc.new_value)}")
        return "\n".join(lines)

    def format_failure(self, external_id: str, display_name: str, error: str) -> str:
        return f"FAILED {display_name} (ID: {external_id or EMPTY_VALUE}) - {error}"

    def format_summary(self, summary: SyncSummary) -> str:
        lines = [
            "=" * 60,
            "RESUMEN DEL SYNC" + (" (CANCELADO)" if summary.cancelled else ""),
            f"  Total:          {summary.total_records}",
            f"  Creados:        {summary.created}",
            f"  Actualizados:   {summary.updated}",
            f"  Sin cambios:    {summary.unchanged}",
            f"  Fallidos:       {summary.failed}",
            f"  Campos cambiados: {summary.total_field_changes}",
            f"  Duracion:       {summary.duration_seconds:.2f}s",
            "=" * 60,
        ]
        return "\n".join(lines)


class JsonAuditFormatter:
    """Formato estructurado: un objeto JSON por linea."""

    @staticmethod
    def _dump(payload: Dict[str, Any]) -> str:
        return json.dumps(payload, default=str, ensure_ascii=False)

    def format_change(self, change: ChangeRecord) -> str:
        payload = {"type": "change", **change.to_dict()}
        return self._dump(payload)

    def format_failure(self, external_id: str, display_name: str, error: str) -> str:
        return self._dump({
            "type": "failure",
            "timestamp": utc_now().isoformat(),
            "external_id": external_id,
            "display_name": display_name,
            "error": error,
        })

    def format_summary(self, summary: SyncSummary) -> str:
        return self._dump({"type": "summary", **summary.to_dict()})


Formatter = Union[TextAuditFormatter, JsonAuditFormatter]


class _AuditChannel:
    """Un destino de auditoria: un formatter y un handler de loguru."""

    def __init__(self, name: str, formatter: Formatter, bound_logger, handler_id: int, file_glob: str) -> None:
        self.name = name
        self.formatter = formatter
        self.logger = bound_logger
        self.handler_id = handler_id
        self.file_glob = file_glob


class AuditRecorder:
    """
    Gestor de la auditoria de una corrida de sync.

    Crea dos sinks de loguru filtrados por un id propio, de modo que cada
    instancia escribe solo en sus archivos:
    - employee_changes_<fecha>.log   (texto)
    - employee_changes_<fecha>.jsonl (JSON por linea)

    Las escrituras son sincronicas y se serializan con un lock propio, asi
    que se puede llamar desde varios workers y los errores de I/O llegan a
    _write para reintentar y contar.

    La retencion de loguru solo corre al rotar (una escritura que cruza la
    medianoche). Como una corrida dura minutos, la poda por cantidad de
    archivos se hace tambien al abrir y al cerrar.

    Uso:
        audit = AuditRecorder("logs/audit", retention_count=30)
        audit.record_change(change)
        audit.record_summary(summary)
        audit.close()
    """

    TEXT_FILE_PATTERN = "employee_changes_{time:YYYY-MM-DD}.log"
    JSON_FILE_PATTERN = "employee_changes_{time:YYYY-MM-DD}.jsonl"
    TEXT_FILE_GLOB = "employee_changes_*.log"
    JSON_FILE_GLOB = "employee_changes_*.jsonl"
    TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message}"
    JSON_FORMAT = "{message}"
    ROTATION = "00:00"
    WRITE_ATTEMPTS = 2

    def __init__(
        self,
        log_dir: Union[str, Path] = "logs/audit",
        retention_count: int = 30,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.retention_count = max(1, retention_count)
        self.failed_writes = 0
        self._sink_id = uuid.uuid4().hex
        self._lock = threading.Lock()
        self._closed = False

        self._channels: List[_AuditChannel] = [
            self._add_channel("text", TextAuditFormatter(), self.TEXT_FILE_PATTERN,
                              self.TEXT_FILE_GLOB, self.TEXT_FORMAT),
            self._add_channel("json", JsonAuditFormatter(), self.JSON_FILE_PATTERN,
                              self.JSON_FILE_GLOB, self.JSON_FORMAT),
        ]
        self.prune_old_files()
        logger.info(f"AuditRecorder inicializado en {self.log_dir} (retencion: {self.retention_count} archivos)")

    def _add_channel(
        self,
        name: str,
        formatter: Formatter,
        file_pattern: str,
        file_glob: str,
        fmt: str,
    ) -> _AuditChannel:
        sink_id = self._sink_id
        handler_id = logger.add(
            str(self.log_dir / file_pattern),
            format=fmt,
            filter=lambda record, sid=sink_id, ch=name: (
                record["extra"].get("audit_sink") == sid
                and record["extra"].get("audit_channel") == ch
            ),
            rotation=self.ROTATION,
            retention=self.retention_count,
            level="DEBUG",
            encoding="utf-8",
            enqueue=False,
            # Los errores de I/O suben a _write para reintentar.
            catch=False,
        )
        bound = logger.bind(audit_sink=sink_id, audit_channel=name)
        return _AuditChannel(name, formatter, bound, handler_id, file_glob)

    def prune_old_files(self) -> int:
        """
        Borra los archivos de auditoria que exceden retention_count por canal.

        Se conservan los mas recientes por fecha de modificacion.

        Returns:
            int: Cantidad de archivos borrados
        """
        removed = 0
        for channel in self._channels:
            files = sorted(
                self.log_dir.glob(channel.file_glob),
                key=lambda p: (p.stat().st_mtime, p.name),
                reverse=True,
            )
            for old_file in files[self.retention_count:]:
                try:
                    old_file.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(f"No se pudo borrar auditoria vieja {old_file}: {e}")
        if removed:
            logger.info(f"Auditoria: {removed} archivo(s) fuera de retencion borrados")
        return removed

    def _write(self, channel: _AuditChannel, level: str, build_message) -> None:
        """Escribe en un canal con un reintento. Nunca lanza."""
        last_error: Optional[Exception] = None
        with self._lock:
            for _ in range(self.WRITE_ATTEMPTS):
                try:
                    message = build_message(channel.formatter)
                    channel.logger.log(level, message)
                    return
                except Exception as e:
                    last_error = e
            self.failed_writes += 1

        error = AuditWriteException(f"No se pudo escribir auditoria ({channel.name}): {last_error!r}")
        logger.warning(error.message)

    def _emit(self, level: str, build_message) -> None:
        if self._closed:
            logger.warning("AuditRecorder cerrado: evento de auditoria descartado")
            with self._lock:
                self.failed_writes += 1
            return
        for channel in self._channels:
            self._write(channel, level, build_message)

    def record_change(self, change: ChangeRecord) -> None:
        """
        Registra los cambios de un registro (creacion o actualizacion).

        Args:
            change: Cambios del registro en esta corrida
        """
        self._emit("INFO", lambda f: f.format_change(change))

    def record_failure(self, external_id: str, display_name: str, error: str) -> None:
        """
        Registra el fallo de un registro con su motivo.

        Args:
            external_id: Id externo (puede venir vacio)
            display_name: Nombre para mostrar
            error: Motivo del fallo
        """
        self._emit("ERROR", lambda f: f.format_failure(external_id, display_name, error))

    def record_summary(self, summary: SyncSummary) -> None:
        """
        Registra el resumen final de la corrida.

        Args:
            summary: Resumen con contadores finales
        """
        self._emit("INFO", lambda f: f.format_summary(summary))

    def close(self) -> None:
        """Remueve los sinks y poda los archivos fuera de retencion."""
        if self._closed:
            return
        self._closed = True
        for channel in self._channels:
            try:
                logger.remove(channel.handler_id)
            except ValueError:
                logger.debug(f"Handler de auditoria {channel.handler_id} ya removido")
        self.prune_old_files()

    def __enter__(self) -> "AuditRecorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
